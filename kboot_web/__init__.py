# kboot_web: Flask operator panel for the boot actions.
