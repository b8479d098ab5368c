# Session = everything needed to resume a conversation's workflow at its last committed step.

# Mutated only through SessionStore: begin a transition, then commit or abort it.

# A session never holds partial results; failed steps leave the last committed state.
