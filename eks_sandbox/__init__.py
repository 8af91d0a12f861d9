"""
EKS Sandbox

Provisions a short-lived EKS cluster with its own VPC, and tears both down
again without touching resources the tool did not create.
"""

__version__ = "0.8.0"
