"""Bootloader protocol, chip descriptions and ELF firmware tools for Espressif devices."""

__version__ = "0.1.0"