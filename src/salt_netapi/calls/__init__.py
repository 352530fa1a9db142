"""
Call/result pipeline.
This package turns typed call descriptions into salt-api request payloads
and decodes the untyped per-minion answers into `Ok`/`Err` results.
"""
