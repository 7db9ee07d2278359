"""Release promotion workflow against an Artifactory-style repository server.

This package provides:
- Staged (dry run, then commit) build promotion with response evaluation
- Optional 'Push to Nexus' user plugin execution before promotion
- A shared, pollable promotion status log for operator interfaces
- Release/next-development rewriting of gradle.properties files
"""
