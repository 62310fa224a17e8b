"""
fixreconcile - keeps declared Google Cloud infrastructure in sync with the compute API.
"""

__title__ = "fixreconcile"
__description__ = "Reconcile declared GCP compute resources with the remote control plane."
__author__ = "Some Engineering Inc."
__license__ = "Apache 2.0"
__copyright__ = "Copyright © 2023 Some Engineering Inc."
__version__ = "0.1.0"
