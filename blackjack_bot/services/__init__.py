"""Services package - game logic and its collaborators."""
