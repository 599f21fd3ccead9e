# Recruiting pipeline board: applicants as cards in ordered stage columns
#
# Components:
#   schema.py      - Data model (Applicant, StageInfo, RegistrationType) and row mapping
#   ordering.py    - Partitioned reorder of the flat applicant list
#   store.py       - In-memory applicant store and stage registry
#   persistence.py - SQLite row store with change feed
#   events.py      - Change feed (full-table pushes to subscribers)
#   sync.py        - Optimistic update, remote call, rollback
#   selection.py   - Multi-select and move-set resolution
#   projection.py  - Search/evaluation highlight and display sort
#   drag.py        - Drag gesture events to moves and reorders
#   board.py       - Wires it all together
#   config.py      - YAML/env configuration
