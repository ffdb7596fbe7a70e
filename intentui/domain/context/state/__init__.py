# State = the component tree every renderer reads from.

# It is only ever replaced through a dispatched edit:

# render / update / remove / show / hide / set_order, or a batch of them

# Each dispatch produces a diff, bumps the version and notifies subscribers

# Reductions are copy-on-write, so a preview never touches the live tree
