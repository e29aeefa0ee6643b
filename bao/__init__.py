"""Build Asset Optimizer: recompress a build output tree in place."""
