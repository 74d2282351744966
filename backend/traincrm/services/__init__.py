# Domain services; each module exposes a module-level singleton
