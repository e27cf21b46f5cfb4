"""SkillSwap API: peer-to-peer skill exchange marketplace."""
