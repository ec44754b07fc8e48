from listcrawl.run import main

if __name__ == "__main__":
    # Defaults come from listcrawl.config (environment variables); command line
    # flags override them for a single run.
    raise SystemExit(main())
