"""
example.py - Simple Example for grouprate

Basic workflow for a group rate adaptation scenario: one source sends group
traffic to drifting receivers, the receivers report their reception quality
back and the source steps its group mode to follow the weakest receiver. Uses
default values for everything not shown. See the module docstrings for the
full set of parameters.
"""

import grouprate as gr

#------------------------------------------------------------------------------#
#    Set Up Simulation                                                         #
#------------------------------------------------------------------------------#

sim = gr.simulator.Simulator(                  # create a simulation object
    name='Example',                            # title of output directory
    runTime=20000,                             # simulated time: 20 s
    nReceivers=5,                              # group receivers
    seed=7,                                    # reproducible placement
)

#------------------------------------------------------------------------------#
#    Rate Adaptation                                                           #
#------------------------------------------------------------------------------#

sim.engineConfig = {
    'rateType': 0,                             # delivery threshold algorithm
    'perPolicy': 'rate',                       # fastest qualifying mode
    'PER_THRESHOLD': 1e-3,                     # loss probability ceiling
}
sim.monitorConfig = {
    'feedbackType': 1,                         # mean minus deviation
    'BETA': 0.5,                               # deviation multiplier
}

#------------------------------------------------------------------------------#
#    Network                                                                   #
#------------------------------------------------------------------------------#

sim.netConfig = {
    'SNR_NOMINAL': 30.0,                       # SNR at 10 m (dB)
    'shadowType': 'gaussian',                  # per-reception shadowing
    'SHADOW_STD': 1.5,                         # shadowing spread (dB)
}
sim.SPEED = 3.0                                # receivers drift away at 3 m/s

#------------------------------------------------------------------------------#
#    Run Simulation                                                            #
#------------------------------------------------------------------------------#

sim.run()                                      # start the simulation
sim.plot()                                     # save the group rate plot
