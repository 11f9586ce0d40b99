"""
This package contains the processing pipelines of the media-workflow toolkit.

A pipeline orchestrates a complete workflow as a fixed sequence of phases. It
coordinates the services (file filtering, metadata lookup, extraction,
conversion) and stops at the first failing phase.
"""
