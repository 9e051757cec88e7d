from just_expression.cli import main

if __name__ == "__main__":
	main()
