from swarm_health.app import main

main()
