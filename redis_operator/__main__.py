from redis_operator.main import main

main()
