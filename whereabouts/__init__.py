"""IP address management: range arithmetic, allocation, CNI results and pool checks."""

__version__ = "0.1.0"