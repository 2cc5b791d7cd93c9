"""Electron-transfer kinetics from multi-scan-rate data (Laviron, Nicholson)."""
