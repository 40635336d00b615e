"""Pipeline stages, in execution order.

Order: validate -> load -> metadata -> select -> convert -> merge -> cleanup

Stages:
    validate -- Check argument shape before touching any file: at least two
                inputs, an output path that is not one of the inputs, and
                overwrite confirmation when the output already exists.
    load     -- Resolve and probe every input concurrently via ffprobe into
                immutable SourceRecords. Waits for all probes, reports every
                failure, and succeeds only if every file loaded.
    metadata -- Build the merged chapter table (explicit chapters verbatim,
                one synthesized "Chapter N" per chapterless file) and apply
                custom tags. Cannot fail.
    select   -- Not a module here: selector.select_target() picks one codec
                and bitrate for the batch (majority vote, max bitrate).
    convert  -- Re-encode mismatched inputs in parallel into unique temp
                files. On any failure, reports all failures and deletes the
                temp files that were produced before aborting.
    merge    -- One ffmpeg concat call: audio from every file in order, tags
                and artwork from the first file, chapters from the metadata
                stage, track tag cleared, MP4 container.
    cleanup  -- Delete every temporary record's file after the merge attempt,
                successful or not. Best-effort.
"""
