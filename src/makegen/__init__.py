"""Makegen - Makefile generator for mingw project builds."""

__version__ = "0.1.0"
