"""
Sample Module

Purpose: Smallest possible module, useful as a template
Interface: SampleModule (one secret point, one function)
"""

from .sample import SampleModule

__all__ = ["SampleModule"]
