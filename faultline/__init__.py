"""
Fault-injection scenarios for Byzantine-fault-tolerant consensus clusters.

The ``nemesis`` subpackage holds the fault injectors and the outcome
classifier; ``workload`` the clients run alongside them; ``scenario`` ties a
set of options to one planned run.
"""
