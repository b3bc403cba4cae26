"""
Session core: the register / login / refresh / logout protocol, its error
taxonomy, and the audit sink it reports to.
"""
