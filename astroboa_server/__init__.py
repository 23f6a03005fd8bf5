"""
astroboa_server package
-----------------------
Installs the Astroboa server stack (TorqueBox/JBoss runtime, Astroboa EAR,
JDBC and Spring modules, templated JBoss config) on Linux and macOS hosts,
persists the install state and controls the server process (start/stop/check).
"""

__version__ = "0.4.0"
