"""Run the flux-profiles command line tool."""

from .tool.flux_profiles import main

if __name__ == "__main__":
    main()
