from web_app import create_app


def main():
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"], debug=False)


if __name__ == "__main__":
    main()
