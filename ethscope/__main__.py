if __name__ == "__main__":
    try:
        from ethscope.app import run
        run()
    except ModuleNotFoundError as e:
        if "textual" in str(e) or "web3" in str(e):
            import sys
            print("Missing dependency. Run from project root: pip install -e .", file=sys.stderr)
            print("  (then: ethscope)", file=sys.stderr)
            sys.exit(1)
        raise
