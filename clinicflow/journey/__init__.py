"""
Prospect Journey: lead-to-episode read model.

Data flow:
  fetcher.fetch_records() → identity (dedup + matching) → stages.derive_stage()
  → prioritizer.prioritize() → tracker state

listener.LiveUpdateListener re-triggers the tracker on intake table changes.
"""
