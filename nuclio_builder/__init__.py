"""nuclio-builder: build nuclio processor images from function sources."""
