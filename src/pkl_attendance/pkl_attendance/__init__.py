"""PKL Attendance package.

Field-placement (PKL) attendance: geofenced tap-in/tap-out, the end-of-day
reconciliation sweep, and approval workflows for manual corrections and
leave permits. Organized by feature modules with a thin Flask controller
layer over service/repository layers.
"""
