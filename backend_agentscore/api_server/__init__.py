"""
API server package: HTTP interface for service health and job status.
"""
