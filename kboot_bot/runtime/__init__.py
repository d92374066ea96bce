# kboot_bot/runtime/__init__.py
# Runtime package for the boot panel.
# main.py is the only process entry; boot_orchestrator sequences the operator actions.
