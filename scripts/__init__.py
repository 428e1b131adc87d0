"""Developer scripts for generating sample message archives."""

from .generate_test_dataset import create_dataset

__all__ = ["create_dataset"]
