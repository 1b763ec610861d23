"""Gallery curation limits.

These encode product policy rather than tuning knobs: each species gallery
is curated to a fixed number of photos, and the unassigned inbox is capped so
it cannot be used to sidestep the per-species ceiling.
"""

# Photos a user may keep per species. At the ceiling a new photo must replace one.
SPECIES_PHOTO_LIMIT = 8

# Photos that may wait in the inbox without a species assignment.
UNASSIGNED_PHOTO_LIMIT = 24
