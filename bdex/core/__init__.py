"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadManager` acts as the
run coordinator, delegating each individual block to the `BlockAcquirer`
and the final reassembly to the merger.
"""
