# Conversation context lives here.

#  +---------------------+
# |      Session        |   (per conversation, in process memory)
# |---------------------|
# | Workflow state      |
# | Direction, topics   |
# | Topic, outline      |
# | Version             |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |        Transition            |   (one in flight per conversation)
# |------------------------------|
# | Snapshot at begin            |
# | Generation / persistence     |
# | Commit (version + 1) / abort |
# +------------------------------+
