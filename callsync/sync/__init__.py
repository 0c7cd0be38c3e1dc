"""Call lifecycle synchronization: normalize, reconcile, persist"""
