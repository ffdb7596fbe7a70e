# This module handles context for intent-driven UI edits

# +---------------------+
# |      Memory         |   (Intent log, references, expiring)
# |---------------------|
# | Recorded intents    |
# | "this" / "that"     |
# | Type / position refs|
# +---------------------+

# +---------------------+
# |      State          |   (Authoritative component tree)
# |---------------------|
# | Descriptors by id   |
# | Version counter     |
# | Subscribers         |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |           Context            |   (Assembled per intent)
# |------------------------------|
# | Visible components           |
# | Facts with provenance        |
# | Resolved reference, if any   |
# | Annotated user input         |
# +------------------------------+
#         |
#         v
#   [decision policy -> edit batch]
