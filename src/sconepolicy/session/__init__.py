"""
Session lifecycle for sconepolicy.

- reconciler: brings one remote session in line with its template
- lifecycle:  orders namespace, primary and secondary sessions and drives
              secret rotation
"""
