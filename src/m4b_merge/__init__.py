"""m4b-merge -- merge audio files into a single chaptered M4B audiobook.

Core modules:
    config      -- Merge configuration via pydantic-settings (M4B_MERGE_* env vars)
    cli         -- Click CLI entry point. Only flags actually given are passed as
                   kwargs to MergeConfig, so env and .env values still apply.
    runner      -- Pipeline orchestration: stage order, exit codes, and cleanup
                   of temporary files after every merge attempt.
    selector    -- Majority-vote target codec selection with bitrate reconciliation
    chapters    -- Metadata builder for the merged chapter table and custom tags
    outcome     -- Ok/Err result type used by per-file batch operations
    concurrency -- Thread pool fan-out/fan-in for per-file stages
    process     -- Cancellable subprocess runner for external tools
    ffprobe     -- Input inspection via one ffprobe JSON call per file
    ffmpeg      -- Transcode and concat command construction/invocation

Subpackages:
    stages -- Pipeline stages (validate, load, metadata, convert, merge, cleanup)
"""
