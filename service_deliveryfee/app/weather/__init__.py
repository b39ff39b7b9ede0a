"""
Weather feed ingestion.

- importer: XML parsing of the observations feed and the periodic
  import loop that appends observations to the weather store.
"""
