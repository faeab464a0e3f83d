"""Merkle Checkpoint - Order-sensitive checksum trees over signature sequences."""

__version__ = "0.1.0"

# Directory and file constants
MCKPT_DIR = ".merkle-checkpoint"
CONFIG_FILE = "config.json"
