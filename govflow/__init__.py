"""
GovFlow Eligibility & Form Workflow Engine

Matches citizen profiles against a catalog of government services, guides
applicants through multi-step forms with validation and auto-fill, and
submits completed applications exactly once.
"""

__version__ = "1.0.0"
__author__ = "GovFlow Team"
__description__ = "Eligibility scoring and form workflow engine for government services"
