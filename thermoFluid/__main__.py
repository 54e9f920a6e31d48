from thermoFluid.runner import main

main()
