# kboot_bot: boot orchestration core (process probe/launch, login script, token handoff).
