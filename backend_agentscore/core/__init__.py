"""
Core cross-cutting pieces shared by ingestion, scoring, jobs and API.
"""
