"""Face identity resolution: similarity, running averages and person image sets."""
