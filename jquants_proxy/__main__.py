from jquants_proxy.cli import main

main()
