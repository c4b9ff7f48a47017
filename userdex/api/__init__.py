"""HTTP routers mounted by :mod:`userdex.main`."""
