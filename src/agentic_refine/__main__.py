from agentic_refine.cli.runner import main

main()
