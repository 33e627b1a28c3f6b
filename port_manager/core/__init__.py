"""Port inventory core, runtime client and server plumbing."""
