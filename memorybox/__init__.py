"""
Memory Box Uploader - Single-container application.

Takes one operator's batch of photos, songs and stat tile values and
commits it to fixed paths in a GitHub repository through the contents API.
"""
